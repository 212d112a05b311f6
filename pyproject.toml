[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "slamtools"
version = "0.1.0"
description = "Visual SLAM building blocks: curve fitting, ORB descriptors, pose estimation, optical flow, direct method and bundle adjustment"
requires-python = ">=3.10"
dependencies = [
    "numpy",
    "scipy",
]
keywords = [
    "slam",
    "computer-vision",
    "bundle-adjustment",
    "optical-flow",
    "orb",
    "pose-estimation",
    "gauss-newton",
]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Science/Research",
    "Intended Audience :: Education",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Scientific/Engineering :: Image Processing",
    "Topic :: Scientific/Engineering :: Mathematics",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[project.scripts]
slamtools-curve-fit = "slamtools.curve_fitting:main"
slamtools-bundle-adjust = "slamtools.bundle_adjustment:main"

[tool.hatch.build.targets.wheel]
packages = ["slamtools"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
