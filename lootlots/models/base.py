"""Declarative base shared by every loot table."""
from ..db import db

Model = db.Model
metadata = db.metadata
