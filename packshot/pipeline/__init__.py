"""
Packshot Processing Pipeline

Six-stage synchronous pipeline:
1. Normalize - square RGBA canvas
2. Remove background - external segmentation API (degrades to a no-op)
3. Reposition - center-bottom composition
4. Synthesize mask - editable region from alpha
5. Inpaint - generative edit of the background (optional)
6. Post-process - recompose + finalizer
"""
