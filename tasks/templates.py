"""Built-in task presets."""

from __future__ import annotations

from typing import Any

TASK_TEMPLATES: dict[str, dict[str, Any]] = {
    "web-optimized": {
        "name": "Web Optimization",
        "description": "Optimize images for web with modern formats",
        "steps": [
            ("resize", {"dimension": 1920, "mode": "longest"}),
            ("optimize", {"quality": 85, "format": "auto", "compressionMode": "adaptive"}),
            ("rename", {"pattern": "{name}-{width}w"}),
        ],
    },
    "social-media": {
        "name": "Social Media Posts",
        "description": "Prepare images for social media platforms",
        "steps": [
            ("resize", {"dimension": 1080, "mode": "longest"}),
            ("crop", {
                "width": 1080,
                "height": 1080,
                "mode": "smart",
                "confidenceThreshold": 70,
                "multipleFaces": True,
            }),
            ("optimize", {"quality": 90, "format": "auto", "compressionMode": "balanced"}),
        ],
    },
    "portrait-smart": {
        "name": "Smart Portrait Cropping",
        "description": "Portrait cropping driven by face detection",
        "steps": [
            ("resize", {"dimension": 1080, "mode": "longest"}),
            ("crop", {
                "width": 1080,
                "height": 1350,
                "mode": "face",
                "confidenceThreshold": 80,
                "preserveAspectRatio": True,
            }),
            ("optimize", {"quality": 95, "format": "auto", "compressionMode": "adaptive"}),
        ],
    },
    "product-showcase": {
        "name": "Product Showcase",
        "description": "Smart cropping for product images",
        "steps": [
            ("resize", {"dimension": 1200, "mode": "longest"}),
            ("crop", {
                "width": 1200,
                "height": 1200,
                "mode": "object",
                "objectsToDetect": ["product", "item"],
                "confidenceThreshold": 75,
            }),
            ("optimize", {"quality": 90, "format": "auto", "compressionMode": "balanced"}),
        ],
    },
    "favicon-package": {
        "name": "Favicon Package",
        "description": "Generate complete favicon set for all devices",
        "steps": [
            ("resize", {"dimension": 512, "mode": "longest"}),
            ("crop", {"width": 512, "height": 512, "mode": "smart", "confidenceThreshold": 70}),
            ("favicon", {
                "sizes": [16, 32, 48, 64, 128, 180, 192, 256, 512],
                "formats": ["png", "ico"],
                "generateManifest": True,
                "generateHtml": True,
            }),
            ("rename", {"pattern": "{name}-favicon-{size}"}),
        ],
    },
    "optimization-only": {
        "name": "Optimization Only",
        "description": "Optimize images without resizing or cropping",
        "steps": [
            ("optimize", {
                "quality": 85,
                "format": "auto",
                "maxDisplayWidth": 1920,
                "compressionMode": "adaptive",
                "browserSupport": ["modern", "legacy"],
            }),
        ],
    },
}


def list_templates() -> list[str]:
    return sorted(TASK_TEMPLATES)
