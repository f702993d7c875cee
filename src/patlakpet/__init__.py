"""
patlakpet

Patlak graphical analysis of dynamic PET images.

This package provides tools for fitting the Patlak linear model to every
voxel of a dynamic PET series, given a sampled plasma input function, and
for displaying 2D/3D arrays with independent or shared intensity scaling.

Quick Start:
    1. Fit parametric maps:
       patlakpet fit dynamic.nii plasma.txt --blood-volume 0.05

    2. Look at the slope map:
       patlakpet show slope_dynamic.nii --output slope.png

License: LGPL-2.1-or-later
"""

__version__ = "0.1.0"
__license__ = "LGPL-2.1-or-later"
