from smarthealth.voice.renderers import get_renderer
from smarthealth.voice.script import CallScript

__all__ = ["CallScript", "get_renderer"]
