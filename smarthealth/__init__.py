"""SmartHealth conversational session engine for USSD and voice IVR."""

__version__ = "0.1.0"
