# slamtools

Building blocks for visual SLAM, written with NumPy and SciPy. Images are
2-D grayscale NumPy arrays, points are NumPy arrays of shape `(N, 2)` or
`(N, 3)`, and rotations are 3x3 matrices or angle-axis vectors.

## Modules

- `slamtools.rotation`: `dot_product`, `cross_product`,
  `angle_axis_to_quaternion`, `quaternion_to_angle_axis` (quaternions are
  `(w, x, y, z)`) and `angle_axis_rotate_point` (Rodrigues' formula).
- `slamtools.noise`: `rand_double` (uniform in `[0, 1]`) and `rand_normal`
  (Marsaglia polar method), drawn from a generator you pass in, or from the
  `random` module's global generator when you pass `None`.
- `slamtools.lie`: `hat`, `so3_exp`, `so3_log` and the `SE3` rigid transform
  with `identity`, `exp` (twist ordered translation first, then rotation),
  `compose` (also the `@` operator), `transform` and `matrix`.
- `slamtools.curve_fitting`: fits `y = exp(a·x² + b·x + c)`.
  `generate_curve_data` makes noisy samples, `fit_gauss_newton` runs a
  hand-written Gauss–Newton loop and `fit_least_squares` uses SciPy's
  Levenberg–Marquardt solver; both return a `FitResult`.
- `slamtools.orb`: `compute_orb` computes rotated BRIEF descriptors (eight
  32-bit words) at keypoints you supply, giving `None` for keypoints within
  16 pixels of the border; `hamming_distance`, `bf_match` (brute-force
  matching, keeping matches closer than 40 bits by default) and
  `filter_good_matches` (keeps distances up to `max(2 * min, 30)`). Matches
  are `Match` records.
- `slamtools.camera`: `pixel2cam`, `backproject` and `DEFAULT_K`, the
  default intrinsic matrix.
- `slamtools.epipolar`: `skew`, `epipolar_constraint`,
  `find_fundamental_8point` (normalised eight-point), `find_essential` and
  `recover_pose` (chooses the decomposition that puts the most points in
  front of both cameras; the translation has unit length).
- `slamtools.triangulation`: `triangulate_points` (linear DLT, homogeneous
  output), `triangulate` (points in the first camera frame) and
  `depth_color` (BGR colour for depths clamped to 10–50).
- `slamtools.pnp`: `reprojection_jacobian` and `solve_pnp_gauss_newton`,
  which refines a world-to-camera `SE3` pose from 3-D/2-D correspondences.
- `slamtools.icp`: `icp_svd` (closed-form alignment) and
  `icp_bundle_adjustment` (Levenberg–Marquardt refinement from the
  identity); both return `(R, t)` with `pts1 ≈ R·p2 + t`.
- `slamtools.imaging`: `bilinear_clamped`, `bilinear`, `resize_bilinear` and
  `build_pyramid`.
- `slamtools.optical_flow`: Lucas–Kanade tracking by Gauss–Newton,
  `optical_flow_single_level` (forward or inverse formulation, optional
  initial guess) and `optical_flow_multi_level` (four levels, scale 0.5).
  Both return tracked positions and per-point success flags.
- `slamtools.direct_method`: `Intrinsics` (with `scaled`),
  `disparity_to_depth`, `JacobianAccumulator` and the direct pose estimators
  `direct_pose_single_layer` and `direct_pose_multi_layer`.
- `slamtools.bal`: `BALProblem` loads (`from_file`, optionally storing
  rotations as quaternions), writes (`write_to_file`, `write_to_ply`),
  normalises (`normalize`) and perturbs (`perturb`) BAL datasets; `median`
  returns the upper median.
- `slamtools.reprojection`: `project_with_distortion` and
  `reprojection_residual` for the nine-value BAL camera (angle-axis,
  translation, focal length, two radial distortion terms).
- `slamtools.bundle_adjustment`: `solve_bundle_adjustment` refines all
  cameras and points of a `BALProblem` in place with SciPy's sparse
  least-squares solver, optionally with a Huber loss.

Progress and intermediate values are reported through the standard
`logging` module.

## Installation

```
pip install .
```

To run the tests as well:

```
pip install .[test]
pytest
```

## Command-line use

Fit the exponential curve to synthetic noisy data and print the estimate:

```
slamtools-curve-fit
```

Options: `--method {gauss-newton,least-squares}`, `--points`, `--sigma`,
`--seed`, `--iterations`.

Run bundle adjustment on a BAL dataset. The problem is normalised and
perturbed, then solved; point clouds before and after are written to
`initial.ply` and `final.ply`:

```
slamtools-bundle-adjust problem.txt
```

Options: `--initial`, `--final` (output paths), `--seed` (perturbation
seed), `--no-robust` (disable the Huber loss), `--max-nfev` (limit on
function evaluations).

## Library use

```python
import numpy as np
from slamtools.curve_fitting import generate_curve_data, fit_gauss_newton
from slamtools.lie import SE3

x, y = generate_curve_data(100, 1.0, (1.0, 2.0, 1.0), 0)
result = fit_gauss_newton(x, y, (2.0, -1.0, 5.0), 100, 1.0)
print(result.params, result.cost)

pose = SE3.exp(np.array([0.1, 0.0, 0.0, 0.0, 0.0, 0.2]))
print(pose.matrix())
```

```python
from slamtools.bal import BALProblem
from slamtools.bundle_adjustment import solve_bundle_adjustment

problem = BALProblem.from_file("problem.txt", False)
problem.normalize()
solve_bundle_adjustment(problem, True, 100)
problem.write_to_ply("final.ply")
```

## What the package does not do

- It does not read, write, draw or display images. Pass images in as NumPy
  arrays and do any plotting yourself.
- It does not detect keypoints. `compute_orb`, the optical flow trackers and
  the direct method all work on pixel positions you provide.
- It does not estimate homographies or run RANSAC. The fundamental and
  essential matrices are fitted by least squares to all of the given pairs.
- Bundle adjustment works only on problems with cameras in angle-axis form.
  A `BALProblem` loaded with quaternions is rejected.