"""Safegaze inference host.

On-device style detection and redaction of indecent imagery: NSFW
classification, pose/face detection, gender classification and a
skin-ratio driven redaction renderer.
"""

__version__ = "0.1.0"
