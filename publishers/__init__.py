from .mqtt_publisher import ConnectionState, MqttPublisher

__all__ = ["ConnectionState", "MqttPublisher"]
