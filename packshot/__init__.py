"""
Packshot Studio Pipeline

Turns an arbitrary product photo into a square, white-background
e-commerce image:

1. Normalize - square RGBA canvas
2. Background removal - external segmentation service (with local fallback)
3. Reposition - center-bottom catalog composition
4. Mask + Inpaint - optional generative clean-up of the background
5. Post-process - flatten, cosmetic pass, near-white whitening
"""

__version__ = "1.0.0"
