[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "respotplay"
version = "0.3.1"
description = "Audio playback pipeline: sample conversion, dithering, volume mapping, mixers, Ogg passthrough and output sinks"
requires-python = ">=3.10"
dependencies = []
keywords = ["audio", "playback", "pcm", "dither", "mixer", "ogg", "vorbis"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Multimedia :: Sound/Audio :: Players",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["respotplay"]

[tool.pytest.ini_options]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"
