"""
Configuration for the voice bridge.

- constants: Fixed names, defaults and protocol values
- settings: The frozen Settings object read once from the environment
- logging_config: Console and rotating file logging for the application logger
"""
