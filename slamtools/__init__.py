"""Visual SLAM building blocks: rotations, curve fitting, ORB descriptors, pose estimation, optical flow, direct method and bundle adjustment."""

__version__ = "0.1.0"