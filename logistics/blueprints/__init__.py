"""
JSON blueprints.

Each sub-package exposes its Blueprint object; shared request helpers live in
common.py and JSON views of the models in logistics/serializers.py.
"""
