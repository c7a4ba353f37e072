import os

SERVICE_NAME = os.getenv("SERVICE_NAME", "adt-bridge")
BRIDGE_PLUGIN_ID = os.getenv("BRIDGE_PLUGIN_ID", "io.github.adtbridge")
BRIDGE_VERSION = os.getenv("BRIDGE_VERSION", "1.0.0")

# Bind to all interfaces so WSL2 clients (different network namespace) can reach us
BRIDGE_HOST = os.environ.get("BRIDGE_HOST", "0.0.0.0")
BRIDGE_PORT = int(os.environ.get("BRIDGE_PORT", "19456"))
BRIDGE_URL = os.environ.get("BRIDGE_URL", "").rstrip("/")

ADT_WORKSPACE_FILE = os.environ.get("ADT_WORKSPACE_FILE", "")
ADT_REQUEST_TIMEOUT = float(os.environ.get("ADT_REQUEST_TIMEOUT", "300"))

SAP_ADT_URL = os.environ.get("SAP_ADT_URL", "").rstrip("/")
SAP_ADT_USER = os.environ.get("SAP_ADT_USER", "")
SAP_ADT_PASSWORD = os.environ.get("SAP_ADT_PASSWORD", "")
SAP_ADT_CLIENT = os.environ.get("SAP_ADT_CLIENT", "")
SAP_ADT_LANGUAGE = os.environ.get("SAP_ADT_LANGUAGE", "EN")
SAP_ADT_DESTINATION = os.environ.get("SAP_ADT_DESTINATION", "")
SAP_ADT_VERIFY_TLS = os.getenv("SAP_ADT_VERIFY_TLS", "true").lower() == "true"

OTLP_ENDPOINT = os.getenv("OTLP_ENDPOINT")
OTLP_HEADERS = os.getenv("OTLP_HEADERS", "")
