"""Loader utilities for animated models and data-driven state machines."""

from .model import AnimatedModel
from .gltf_loader import GltfLoader
from .state_machine_loader import load_state_machine_definition

__all__ = ['AnimatedModel', 'GltfLoader', 'load_state_machine_definition']
