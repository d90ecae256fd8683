"""
Health Check & Monitoring Endpoints
Liveness, readiness and metrics for the deployment platform
"""
import os
import sys
import time
import psutil
from datetime import datetime
from typing import Dict, Any
from flask import Blueprint, jsonify, current_app
import logging

logger = logging.getLogger(__name__)

SERVICE_NAME = 'airdesk-backend'
SERVICE_VERSION = '1.0.0'

health_bp = Blueprint('health', __name__)

# Track application start time
START_TIME = time.time()


def get_system_metrics() -> Dict[str, Any]:
    """Process CPU, memory and thread counts"""
    try:
        process = psutil.Process()

        return {
            'cpu_percent': process.cpu_percent(interval=0.1),
            'memory_mb': round(process.memory_info().rss / 1024 / 1024, 2),
            'memory_percent': round(process.memory_percent(), 2),
            'threads': process.num_threads(),
        }
    except psutil.Error as e:
        logger.warning(f"Failed to get system metrics: {e}")
        return {}


def get_uptime() -> Dict[str, Any]:
    uptime_seconds = time.time() - START_TIME

    return {
        'uptime_seconds': round(uptime_seconds, 2),
        'uptime_hours': round(uptime_seconds / 3600, 2),
        'started_at': datetime.fromtimestamp(START_TIME).isoformat()
    }


def check_ai_services(app) -> Dict[str, bool]:
    """Which LLM providers are configured"""
    return {
        'openai': bool(app.config.get('OPENAI_API_KEY')),
        'anthropic_claude': bool(app.config.get('ANTHROPIC_API_KEY')),
    }


def check_integrations(app) -> Dict[str, bool]:
    """Email, telephony and voice platform configuration"""
    account_sid = app.config.get('TWILIO_ACCOUNT_SID') or ''
    return {
        'smtp': bool(app.config.get('SMTP_HOST')),
        'twilio': account_sid.startswith('AC') and bool(app.config.get('TWILIO_AUTH_TOKEN')),
        'vapi': bool(app.config.get('VAPI_API_KEY')),
    }


def check_database() -> Dict[str, Any]:
    from database.connection import check_db_connection

    try:
        check_db_connection()
        return {'healthy': True}
    except RuntimeError as e:
        return {'healthy': False, 'error': str(e)}


@health_bp.route('/health', methods=['GET'])
def health_check():
    """
    Liveness: 200 whenever the process is serving requests
    """
    return jsonify({
        'status': 'healthy',
        'timestamp': datetime.utcnow().isoformat(),
        'service': SERVICE_NAME
    }), 200


@health_bp.route('/ready', methods=['GET'])
def readiness_check():
    """
    Readiness: the database must answer. LLM providers and SMTP are
    reported but optional, since extraction and summaries fall back.
    """
    database = check_database()
    is_ready = database['healthy']

    response = {
        'status': 'ready' if is_ready else 'not_ready',
        'timestamp': datetime.utcnow().isoformat(),
        'checks': {
            'database': database,
            'ai_services': check_ai_services(current_app),
            'integrations': check_integrations(current_app),
        }
    }

    return jsonify(response), 200 if is_ready else 503


@health_bp.route('/metrics', methods=['GET'])
def metrics():
    """System metrics and configured services"""
    response = {
        'timestamp': datetime.utcnow().isoformat(),
        'service': SERVICE_NAME,
        'version': SERVICE_VERSION,
        'environment': os.environ.get('FLASK_ENV', 'production'),
        'uptime': get_uptime(),
        'system': get_system_metrics(),
        'services': check_ai_services(current_app),
        'integrations': check_integrations(current_app),
        'python_version': sys.version.split()[0]
    }

    return jsonify(response), 200


@health_bp.route('/ping', methods=['GET'])
def ping():
    return 'pong', 200


def register_health_checks(app):
    """
    Register health check blueprint with Flask app
    """
    app.register_blueprint(health_bp, url_prefix='/api')
    logger.info("Health check endpoints registered: /api/health, /api/ready, /api/metrics, /api/ping")
