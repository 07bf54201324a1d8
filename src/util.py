import copy
import logging

import orjson

logger = logging.getLogger(__name__)


# ─── Package Information ──────────────────────────────────────────────

def get_package_name():
    '''
    returns 'lipika-engine'
    '''
    return 'lipika-engine'


def get_version():
    return '0.1.0'


# ─── Configuration ────────────────────────────────────────────────────

DEFAULT_CONFIG = {
    'stop_character': '\\',
    'escape_character': '`',
    'logging_level': 'WARNING',
}

# Keys whose value has to be exactly one character
SINGLE_CHARACTER_KEYS = ('stop_character', 'escape_character')


def get_default_config_data():
    return copy.deepcopy(DEFAULT_CONFIG)


def _add_warning(warnings, warning_msg):
    logger.warning(warning_msg)
    return warnings + ("\n" if warnings else "") + warning_msg


def get_config_data(user_config=None):
    '''
    Merge the user configuration with the defaults.

    user_config may be None, a dict, or the JSON text of one (str or bytes).
    Missing keys are copied from the defaults and values of the wrong type or
    shape are replaced by the default value.

    Returns:
        tuple: (config_data, warnings_string) where warnings_string is empty if no warnings
    '''
    default_config = get_default_config_data()
    warnings = ""

    if user_config is None:
        return default_config, warnings

    if isinstance(user_config, (str, bytes, bytearray)):
        try:
            config_data = orjson.loads(user_config)
        except orjson.JSONDecodeError as e:
            logger.error('Error parsing the configuration JSON')
            logger.error(e)
            logger.error('Using the default configuration ..')
            return default_config, warnings
    else:
        config_data = copy.deepcopy(user_config)

    if not isinstance(config_data, dict):
        warning_msg = f'The configuration has to be a JSON object but got {type(config_data).__name__}. Using the default configuration'
        warnings = _add_warning(warnings, warning_msg)
        return default_config, warnings

    for k in default_config:
        if k not in config_data:
            warning_msg = f'The key "{k}" was not found in the configuration. Copying the default key-value'
            warnings = _add_warning(warnings, warning_msg)
            config_data[k] = default_config[k]
        if type(config_data[k]) != type(default_config[k]):
            warning_msg = f'Type mismatch found for the key "{k}" between the configuration and the defaults. Replacing the value of this key with the default value'
            warnings = _add_warning(warnings, warning_msg)
            config_data[k] = default_config[k]

    for k in SINGLE_CHARACTER_KEYS:
        if len(config_data[k]) != 1:
            warning_msg = f'The value of "{k}" has to be a single character but got "{config_data[k]}". Replacing it with "{default_config[k]}"'
            warnings = _add_warning(warnings, warning_msg)
            config_data[k] = default_config[k]

    if config_data['stop_character'] == config_data['escape_character']:
        warning_msg = f'stop_character and escape_character are both "{config_data["stop_character"]}". Resetting both to the defaults'
        warnings = _add_warning(warnings, warning_msg)
        config_data['stop_character'] = default_config['stop_character']
        config_data['escape_character'] = default_config['escape_character']

    return config_data, warnings


def dump_config_data(config_data):
    '''
    Serialize the configuration as indented JSON (bytes).
    '''
    return orjson.dumps(config_data, option=orjson.OPT_INDENT_2)


# ─── Logging ──────────────────────────────────────────────────────────

NAME_TO_LOGGING_LEVEL = {
    'DEBUG': logging.DEBUG,
    'INFO': logging.INFO,
    'WARNING': logging.WARNING,
    'ERROR': logging.ERROR,
    'CRITICAL': logging.CRITICAL,
    # Level names of the mapping files' own configuration
    'Debug': logging.DEBUG,
    'Warning': logging.WARNING,
    'Error': logging.ERROR,
    'Fatal': logging.CRITICAL,
}


def apply_logging_level(config):
    '''
    This function sets the logging level
    which can be obtained from the configuration
    When the value is not present (or incorrect),
    warning is used as default.
    '''
    level = 'WARNING'  # default value
    if 'logging_level' in config:
        level = config['logging_level']
    if level not in NAME_TO_LOGGING_LEVEL:
        logger.warning(f'Specified logging level {level} is not recognized. Using the default WARNING level.')
        level = 'WARNING'
    logger.info(f'logging_level: {level}')
    logging.getLogger().setLevel(NAME_TO_LOGGING_LEVEL[level])
    return level
