"""Allow ``python -m mqttbridge``."""

from mqttbridge._cli import main

main()
