"""MQTT transport - Publicación de payloads UL."""

from .publisher import MQTTPublisher, build_topic

__all__ = ["MQTTPublisher", "build_topic"]
