"""
Database connection and session management for round history and AI statistics.
"""

import os
import logging
from contextlib import contextmanager
from sqlalchemy import create_engine, event, text
from sqlalchemy.orm import sessionmaker, scoped_session
from sqlalchemy.pool import QueuePool, StaticPool
import json
import boto3
from botocore.exceptions import ClientError

from domino_server.models import Base, RoundRecord, MoveRecord, AIPerformance

logger = logging.getLogger(__name__)


class DatabaseManager:
    """Manages database connections and sessions"""

    def __init__(self, app=None):
        self.engine = None
        self.SessionLocal = None
        self.app = app
        self.aws_region = os.environ.get('AWS_REGION', 'us-east-1')

        if app is not None:
            self.init_app(app)

    def init_app(self, app):
        """Initialize database with Flask app"""
        self.app = app
        self.aws_region = app.config.get('AWS_REGION') or self.aws_region

        database_url = app.config.get('DATABASE_URL') or os.environ.get('DATABASE_URL')

        if not database_url:
            logger.warning("No DATABASE_URL configured. Round history will not be persisted.")
            return

        self.connect(database_url, echo=app.config.get('SQLALCHEMY_ECHO', False))
        app.db = self

    def connect(self, database_url, echo=False):
        """Create the engine and session factory for ``database_url``"""
        # Handle AWS Secrets Manager for RDS credentials
        if database_url.startswith('secrets-manager://'):
            database_url = self._get_database_url_from_secrets(database_url)

        if database_url.startswith('sqlite'):
            # One shared connection so in-memory databases survive across sessions
            self.engine = create_engine(
                database_url,
                poolclass=StaticPool,
                connect_args={'check_same_thread': False},
                echo=echo
            )
        else:
            self.engine = create_engine(
                database_url,
                poolclass=QueuePool,
                pool_size=5,
                max_overflow=10,
                pool_pre_ping=True,
                pool_recycle=3600,  # Recycle connections every hour
                echo=echo
            )

        event.listen(self.engine, 'connect', self._on_connect)
        event.listen(self.engine, 'checkout', self._on_checkout)

        self.SessionLocal = scoped_session(
            sessionmaker(autoflush=False, bind=self.engine, expire_on_commit=False)
        )

        self.create_tables()

    def _get_database_url_from_secrets(self, secrets_url):
        """Get database URL from AWS Secrets Manager"""
        try:
            # Parse secrets manager URL: secrets-manager://secret-name/region
            parts = secrets_url.replace('secrets-manager://', '').split('/')
            secret_name = parts[0]
            region = parts[1] if len(parts) > 1 and parts[1] else self.aws_region

            session = boto3.session.Session()
            client = session.client('secretsmanager', region_name=region)

            response = client.get_secret_value(SecretId=secret_name)
            secret = json.loads(response['SecretString'])

            username = secret['username']
            password = secret['password']
            host = secret['host']
            port = secret.get('port', 3306)
            dbname = secret.get('dbname', 'dominoesdb')

            return f"mysql+pymysql://{username}:{password}@{host}:{port}/{dbname}"

        except ClientError as e:
            logger.error(f"Failed to get database credentials from Secrets Manager: {e}")
            raise
        except (KeyError, ValueError) as e:
            logger.error(f"Malformed database secret {secrets_url}: {e}")
            raise

    def _on_connect(self, dbapi_connection, connection_record):
        logger.debug("New database connection established")

    def _on_checkout(self, dbapi_connection, connection_record, connection_proxy):
        logger.debug("Database connection checked out from pool")

    def create_tables(self):
        """Create all database tables"""
        try:
            Base.metadata.create_all(bind=self.engine)
            logger.info("Database tables created successfully")
        except Exception as e:
            logger.error(f"Failed to create database tables: {e}")
            raise

    def get_session(self):
        """Get a database session"""
        if not self.SessionLocal:
            raise RuntimeError("Database not initialized")
        return self.SessionLocal()

    @contextmanager
    def session_scope(self):
        """Provide a transactional scope around a series of operations"""
        session = self.get_session()
        try:
            yield session
            session.commit()
        except Exception as e:
            session.rollback()
            logger.error(f"Database transaction failed: {e}")
            raise
        finally:
            session.close()

    def health_check(self):
        """Check database connectivity"""
        if not self.engine:
            return False, "Database not configured"

        try:
            with self.session_scope() as session:
                session.execute(text('SELECT 1'))
            return True, "Database connection healthy"
        except Exception as e:
            logger.error(f"Database health check failed: {e}")
            return False, f"Database connection failed: {str(e)}"

    def dispose(self):
        """Release the engine and every pooled connection"""
        if self.SessionLocal is not None:
            self.SessionLocal.remove()
        if self.engine is not None:
            self.engine.dispose()
        self.engine = None
        self.SessionLocal = None


# Global database manager instance
db_manager = DatabaseManager()


def init_database(app):
    """Initialize database with Flask app"""
    db_manager.init_app(app)
    return db_manager


class RoundRecorder:
    """Persists finished rounds and AI results through a ``DatabaseManager``

    Instances are handed to ``GameService`` as its ``round_recorder`` and are
    called, outside the room lock, with a ``FinishedRound`` and the round's
    ``(seat, ai_player)`` pairs.
    """

    def __init__(self, manager=None):
        self.manager = manager or db_manager

    def __call__(self, finished, ai_seats):
        if not self.manager.engine:
            return None
        record = self.save_round(finished)
        for seat, ai in ai_seats:
            self.update_ai_performance(ai, seat.team.value, record['winner'])
        return record

    def save_round(self, finished):
        """Save the outcome and move log of a ``FinishedRound``"""
        snapshot = finished.snapshot
        outcome = finished.outcome

        with self.manager.session_scope() as session:
            record = RoundRecord(
                room_code=finished.code,
                round_number=finished.round_number,
                game_mode=finished.mode.value,
                winner=snapshot['winner'],
                reason=outcome.reason,
                points=outcome.points,
                team1_score=snapshot['scores']['team1'],
                team2_score=snapshot['scores']['team2'],
                has_ai=finished.has_ai
            )
            record.set_final_state(snapshot)

            for number, move in enumerate(finished.moves, start=1):
                tile = move.get('tile') or {}
                record.moves.append(MoveRecord(
                    move_number=number,
                    seat=move['seat'],
                    player_name=move['player'],
                    action=move['action'],
                    tile_left=tile.get('left'),
                    tile_right=tile.get('right'),
                    side=move.get('side')
                ))

            session.add(record)
            session.flush()
            logger.info(f"Recorded round {finished.round_number} of room {finished.code} "
                        f"({len(finished.moves)} moves)")
            return record.to_dict()

    def update_ai_performance(self, ai, team, winner):
        """Fold one round into the stored statistics for an AI personality"""
        stats = ai.stats()
        with self.manager.session_scope() as session:
            row = session.query(AIPerformance).filter_by(
                name=ai.name, difficulty=ai.difficulty.value).first()

            if not row:
                row = AIPerformance(name=ai.name, difficulty=ai.difficulty.value,
                                    games_played=0, wins=0, losses=0, draws=0)
                session.add(row)

            row.record_result(winner, team, stats)
            return row.to_dict()


def recent_rounds(room_code=None, limit=20, manager=None):
    """Most recent recorded rounds, newest first"""
    manager = manager or db_manager
    if not manager.engine:
        return []

    with manager.session_scope() as session:
        query = session.query(RoundRecord)
        if room_code:
            query = query.filter_by(room_code=room_code)
        rows = query.order_by(RoundRecord.id.desc()).limit(limit).all()
        return [row.to_dict() for row in rows]


def ai_performance(manager=None):
    """Stored statistics for every AI personality"""
    manager = manager or db_manager
    if not manager.engine:
        return []

    with manager.session_scope() as session:
        rows = session.query(AIPerformance).order_by(AIPerformance.name, AIPerformance.difficulty).all()
        return [row.to_dict() for row in rows]
