import logging
from flask_sqlalchemy import SQLAlchemy
from sqlalchemy import text
from typing import Dict, Any

logger = logging.getLogger(__name__)


class MonitoredSQLAlchemy(SQLAlchemy):
    """Extended SQLAlchemy with a connectivity check for the health endpoint."""

    def health_check(self) -> bool:
        """Perform a health check on the database connection."""
        try:
            result = self.session.execute(text("SELECT 1")).scalar()
            return result == 1
        except Exception as e:
            logger.error(f"Database health check failed: {e}")
            return False

    def get_dialect_info(self) -> Dict[str, Any]:
        try:
            return {'dialect': self.engine.dialect.name}
        except Exception as e:
            logger.error(f"Error reading database dialect: {e}")
            return {'dialect': 'unknown', 'error': str(e)}


db = MonitoredSQLAlchemy()
