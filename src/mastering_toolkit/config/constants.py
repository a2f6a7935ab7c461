"""
System constants that should never change.

These are technical/system limits, not user preferences.
User-configurable values should go in config.yaml instead.
"""

# Logging
VERBOSE_LOGGING_THRESHOLD = 2  # -vv enables debug output

# Loudness analysis sentinels (returned when the meter output has no reading)
UNMEASURED_LOUDNESS_LUFS = -23.0
UNMEASURED_PEAK_DB = 0.0

# Corrective loudnorm pass
LOUDNORM_LOUDNESS_RANGE_MAX = 20.0

# Output formats
LOSSLESS_EXTENSION = ".wav"
DISTRIBUTION_EXTENSION = ".mp3"
CORRECTION_TEMP_SUFFIX = "_temp"
MASTER_NAME_MARKER = "_master_"

# Display limits
ERROR_MESSAGE_TRUNCATE_LENGTH = 100  # Maximum length for error message display
DIAGNOSTIC_TAIL_LINES = 20  # Lines of renderer stderr kept in error messages
