"""Embedded diagram decoding and rendering."""

from .cache import SceneCache
from .decoder import UNPARSEABLE_SCENE, SceneDecodeError, decode_scene
from .model import BinaryFile, Bounds, Element, Scene
from .renderer import RenderedScene, ViewBox, element_bounds, render_scene, scene_bounds, view_box
from .viewport import Viewport

__all__ = [
    "BinaryFile",
    "Bounds",
    "Element",
    "RenderedScene",
    "Scene",
    "SceneCache",
    "SceneDecodeError",
    "UNPARSEABLE_SCENE",
    "ViewBox",
    "Viewport",
    "decode_scene",
    "element_bounds",
    "render_scene",
    "scene_bounds",
    "view_box",
]
