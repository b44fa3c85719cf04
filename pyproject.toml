[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "meshdevice"
version = "0.1.0"
description = "Device-side building blocks for MeshCore mesh networks: ACK tracking, peer keep-alive, advert scheduling and contact management"
requires-python = ">=3.10"
dependencies = []
keywords = ["meshcore", "mesh", "lora", "contacts", "advert", "ack"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Communications",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["meshdevice"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
