# config package: authoritative source for all harness configuration.
#
# Sub-modules:
#   gateway_config.py   : currency table, environment variable names, endpoint paths
#   execution_params.py : concurrency, retry, timeout, and batch-size constants
#
# Secrets are never stored here.  They are read from environment variables
# (names listed in gateway_config.ENV_VAR_TEMPLATES) by
# src/gateway_client/credentials.py.
