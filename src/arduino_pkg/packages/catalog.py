"""Static library catalog and default metadata.

Holds the curated metadata used when the remote lookup is unavailable,
the candidate names offered by discovery search, the topic -> category
table, and the generators for default library and core records.
"""

from pathlib import Path
from typing import Iterable, Optional

from .package import DEFAULT_CATEGORY, PackageRecord

DEFAULT_ARCHITECTURES = frozenset({"avr", "sam", "samd", "esp32", "esp8266"})
CORE_ARCHITECTURES = frozenset({"avr", "sam", "samd"})
DEFAULT_TYPES = ("Arduino",)

CATEGORY_DISPLAY = "Display"
CATEGORY_SENSORS = "Sensors"
CATEGORY_SIGNAL_IO = "Signal Input/Output"
CATEGORY_COMMUNICATION = DEFAULT_CATEGORY

TOPIC_CATEGORIES = {
    "display": CATEGORY_DISPLAY,
    "lcd": CATEGORY_DISPLAY,
    "oled": CATEGORY_DISPLAY,
    "sensor": CATEGORY_SENSORS,
    "temperature": CATEGORY_SENSORS,
    "humidity": CATEGORY_SENSORS,
    "motor": CATEGORY_SIGNAL_IO,
    "servo": CATEGORY_SIGNAL_IO,
    "stepper": CATEGORY_SIGNAL_IO,
    "led": CATEGORY_SIGNAL_IO,
    "neopixel": CATEGORY_SIGNAL_IO,
    "ws2812": CATEGORY_SIGNAL_IO,
    "wifi": CATEGORY_COMMUNICATION,
    "bluetooth": CATEGORY_COMMUNICATION,
    "ethernet": CATEGORY_COMMUNICATION,
}

# Names offered by discovery search in addition to the catalog keys
SEARCH_CANDIDATES = ("WiFi", "Adafruit_GFX", "FastLED", "Servo", "Wire")

_CATALOG_ENTRIES = (
    PackageRecord(
        name="WiFi",
        version="1.2.7",
        author="Arduino",
        maintainer="Arduino",
        description="WiFi library for ESP32 and ESP8266 boards",
        website="https://www.arduino.cc/en/Reference/WiFi",
        repository="https://github.com/arduino-libraries/Arduino_WiFi",
        category=CATEGORY_COMMUNICATION,
        architectures=frozenset({"esp32", "esp8266"}),
        types=DEFAULT_TYPES,
        license="LGPL-2.1",
    ),
    PackageRecord(
        name="Adafruit_GFX",
        version="1.11.9",
        author="Adafruit",
        maintainer="Adafruit",
        description="Graphics library for Adafruit displays",
        website="https://github.com/adafruit/Adafruit-GFX-Library",
        repository="https://github.com/adafruit/Adafruit-GFX-Library",
        category=CATEGORY_DISPLAY,
        architectures=DEFAULT_ARCHITECTURES,
        types=DEFAULT_TYPES,
        license="BSD-3-Clause",
    ),
    PackageRecord(
        name="FastLED",
        version="3.6.0",
        author="FastLED",
        maintainer="FastLED",
        description="Fast and efficient library for WS2811/WS2812/WS2812B/NeoPixel LEDs",
        website="https://fastled.io/",
        repository="https://github.com/FastLED/FastLED",
        category=CATEGORY_SIGNAL_IO,
        architectures=DEFAULT_ARCHITECTURES,
        types=DEFAULT_TYPES,
        license="MIT",
    ),
    PackageRecord(
        name="Servo",
        version="1.1.8",
        author="Arduino",
        maintainer="Arduino",
        description="Library for controlling servo motors",
        website="https://www.arduino.cc/en/Reference/Servo",
        repository="https://github.com/arduino-libraries/Servo",
        category=CATEGORY_SIGNAL_IO,
        architectures=DEFAULT_ARCHITECTURES,
        types=DEFAULT_TYPES,
        license="LGPL-2.1",
    ),
    PackageRecord(
        name="Wire",
        version="1.0.0",
        author="Arduino",
        maintainer="Arduino",
        description="I2C communication library",
        website="https://www.arduino.cc/en/Reference/Wire",
        repository="https://github.com/arduino-libraries/Arduino_Wire",
        category=CATEGORY_COMMUNICATION,
        architectures=DEFAULT_ARCHITECTURES,
        types=DEFAULT_TYPES,
        license="LGPL-2.1",
    ),
)

STATIC_CATALOG: dict[str, PackageRecord] = {record.name.lower(): record for record in _CATALOG_ENTRIES}


def lookup_static(name: str) -> Optional[PackageRecord]:
    """Case-insensitive exact lookup in the static catalog."""
    return STATIC_CATALOG.get(name.lower())


def catalog_names() -> list[str]:
    """Canonical names of all catalog entries."""
    return [record.name for record in _CATALOG_ENTRIES]


def category_for_topics(topics: Iterable[str]) -> str:
    """Derive a library category from repository topics.

    Topics are scanned in order and the last one found in the keyword
    table decides the category.

    Args:
        topics: Repository topic tags

    Returns:
        Category name, ``Communication`` when nothing matches
    """
    category = DEFAULT_CATEGORY
    for topic in topics:
        category = TOPIC_CATEGORIES.get(topic.lower(), category)
    return category


def default_library(name: str, toolkit: str = "Arduino") -> PackageRecord:
    """Synthesize a generic library record for an unknown name."""
    return PackageRecord(
        name=name,
        version="2.0.0",
        author=f"{toolkit} Community",
        maintainer=f"{toolkit} Team",
        description=f"{toolkit} library for {name} functionality",
        website="https://arduino.cc",
        repository=f"https://github.com/arduino-libraries/{name}",
        category=DEFAULT_CATEGORY,
        architectures=DEFAULT_ARCHITECTURES,
        types=DEFAULT_TYPES,
        license="MIT",
    )


def default_core(name: str, install_dir: Optional[Path] = None) -> PackageRecord:
    """Default record for a core installed by name."""
    return PackageRecord(
        name=name,
        version="1.0.0",
        maintainer="Arduino Team",
        website="https://arduino.cc",
        repository="https://github.com/arduino/ArduinoCore-avr",
        architectures=CORE_ARCHITECTURES,
        install_dir=install_dir,
        license="LGPL-2.1",
    )
