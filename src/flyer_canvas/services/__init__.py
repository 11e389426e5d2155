"""
Flyer Canvas - Services

- commands.py / history_manager.py: reversible scene edits and undo/redo
- animation.py: keyframe evaluation
- renderer.py: deterministic scene rasterisation
- encoders.py / export_pipeline.py / export_worker.py: frame export
- serialization.py: JSON scene documents
"""
