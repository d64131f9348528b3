"""mqttbridge.

Execute predefined shell commands on incoming MQTT messages, announced
to Home Assistant as discovery buttons.
"""

from importlib.metadata import PackageNotFoundError, version

from mqttbridge._action import Action
from mqttbridge._bridge import Bridge
from mqttbridge._clock import ClockPort, SystemClock
from mqttbridge._discovery import DeviceInfo, DiscoveryDocument
from mqttbridge._dispatcher import Dispatcher
from mqttbridge._errors import (
    BridgeError,
    CommandError,
    ConfigError,
    ConnectError,
    DispatchError,
    DuplicateSlugError,
    RegistrationError,
    TransportError,
)
from mqttbridge._executor import ExecutionResult, run_command, split_command
from mqttbridge._index import TopicIndex
from mqttbridge._liveness import Liveness, build_will_config
from mqttbridge._logging import JsonFormatter, configure_logging
from mqttbridge._registrar import Registrar, check_unique_slugs
from mqttbridge._session import (
    BrokerSession,
    EventSource,
    InboundMessage,
    MockBroker,
    MqttPort,
    WillConfig,
)
from mqttbridge._settings import (
    ActionSettings,
    LoggingSettings,
    MqttSettings,
    Settings,
    default_config_path,
    load_settings,
)
from mqttbridge._topics import (
    availability_topic,
    command_topic,
    discovery_topic,
    slugify,
)

try:
    __version__ = version("mqttbridge")
except PackageNotFoundError:
    # Source checkout without installed metadata
    __version__ = "0.0.0+unknown"

__all__ = [
    # Version
    "__version__",
    # Actions
    "Action",
    "ExecutionResult",
    "run_command",
    "split_command",
    # Bridge
    "Bridge",
    "Dispatcher",
    "Registrar",
    "TopicIndex",
    "check_unique_slugs",
    # Clock
    "ClockPort",
    "SystemClock",
    # Discovery
    "DeviceInfo",
    "DiscoveryDocument",
    # Errors
    "BridgeError",
    "CommandError",
    "ConfigError",
    "ConnectError",
    "DispatchError",
    "DuplicateSlugError",
    "RegistrationError",
    "TransportError",
    # Liveness
    "Liveness",
    "build_will_config",
    # Logging
    "JsonFormatter",
    "configure_logging",
    # Session
    "BrokerSession",
    "EventSource",
    "InboundMessage",
    "MockBroker",
    "MqttPort",
    "WillConfig",
    # Settings
    "ActionSettings",
    "LoggingSettings",
    "MqttSettings",
    "Settings",
    "default_config_path",
    "load_settings",
    # Topics
    "availability_topic",
    "command_topic",
    "discovery_topic",
    "slugify",
]
