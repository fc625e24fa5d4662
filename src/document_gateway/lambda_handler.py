"""AWS Lambda entry point: the same FastAPI app behind Mangum."""
import logging

from mangum import Mangum

from document_gateway.config.settings import get_settings
from document_gateway.main import create_app

# Lambda pre-installs a root handler; only the level needs setting
logging.getLogger().setLevel(get_settings().log_level)

app = create_app()

# API Gateway / function URL events have no lifespan
lambda_handler = Mangum(app, lifespan="off")
