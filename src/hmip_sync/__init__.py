"""hmip-sync: a live local mirror of a HomematicIP installation.

Keeps the home, groups and devices of an access point in sync with the
cloud push feed and binds each supported device to a stable accessory.
"""

__version__ = "0.1.0"
