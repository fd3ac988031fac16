"""
Content publishing pipeline.

Takes a single email-like submission and:
- Classifies it into structured content (type, intent, targets, fields, media)
- Connects to each destination and discovers its API schema
- Transforms the content to each destination's schema
- Publishes it with a layered recovery chain
- Coordinates errors, thresholds and recovery actions across stages
"""
