# recipe_lineage/__init__.py
__version__ = "0.1.0"
