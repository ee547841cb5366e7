"""Taichi-based Monte Carlo path tracer.

This package renders scenes built from spheres, axis-aligned rectangles, boxes
and triangle meshes with a BVH-accelerated, multiple-importance-sampled path
tracer, with support for:
- Rigid transforms (translation + rotation about the up axis) baked at build time
- Lambertian, metal, dielectric, emissive and volumetric (isotropic) materials
- Motion blur through constant-velocity animation
- Deterministic multi-worker rendering from a single master seed

Subpackages:
    core: Ray utilities, random numbers, the integrator and the renderer
    geometry: Primitives, bounding boxes, transforms and BVH construction
    materials: Textures, material models and scattering distributions
    scene: Scene graph builder, device tables, traversal and world upload
    camera: Camera model with lens and shutter interval
    preview: Image encoding and export

Modules that declare Taichi fields must be imported after ``ti.init`` (see
``pathtracer.config.init_taichi``); this top-level package imports none.
"""

__version__ = "0.1.0"
