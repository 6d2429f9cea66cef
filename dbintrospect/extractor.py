"""
Schema extraction.

One orchestration function drives any engine through its MetadataDialect:
connect, resolve the namespace, list tables and views, analyze tables on a
bounded worker pool, classify routines concurrently, then aggregate foreign
keys and populate the per-table relationship views.
"""

import logging
import threading
import time
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from typing import List, Optional, Tuple, Union

from sqlalchemy import create_engine
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.exc import SQLAlchemyError

from .config import ConnectionDescriptor, ExtractionOptions, fallback_namespace
from .databases import MetadataDialect, get_dialect
from .errors import ConfigurationError, ConnectivityError, ExtractionCancelled
from .inference.chain import TypeInferenceChain
from .inference.samplers import sample_table
from .models import DatabaseSchema, ScalarFunctionInfo, StoredProcedureInfo, TableInfo
from .relationships import aggregate_foreign_keys, infer_relationships_from_names, populate_table_relationships
from .routines import classify_procedure

logger = logging.getLogger(__name__)

_POLL_SECONDS = 0.2


def get_engine(descriptor: ConnectionDescriptor, dialect: MetadataDialect) -> Engine:
    """Create a SQLAlchemy engine for read-only catalog work."""
    kwargs = dict(echo=False, isolation_level="AUTOCOMMIT")
    kwargs.update(dialect.engine_kwargs(descriptor.connect_timeout))
    return create_engine(descriptor.to_url(dialect.default_driver), **kwargs)


class _Stop:
    """Cancellation state shared by the coordinator and its workers."""

    def __init__(self, cancel_event: Optional[threading.Event], deadline: Optional[float]):
        self.cancel_event = cancel_event
        self.deadline = deadline
        self.internal = threading.Event()

    def check(self) -> None:
        if self.cancel_event is not None and self.cancel_event.is_set():
            raise ExtractionCancelled("Extraction cancelled")
        if self.deadline is not None and time.monotonic() > self.deadline:
            raise ExtractionCancelled("Extraction deadline exceeded")
        if self.internal.is_set():
            raise ExtractionCancelled("Extraction aborted")

    def remaining(self) -> float:
        if self.deadline is None:
            return _POLL_SECONDS
        return max(0.0, min(_POLL_SECONDS, self.deadline - time.monotonic()))


def _resolve_namespace(dialect: MetadataDialect, conn: Connection, options: ExtractionOptions) -> str:
    if options.schema_filter:
        return options.schema_filter
    try:
        current = dialect.resolve_default_schema(conn)
    except SQLAlchemyError as e:
        logger.warning(f"Could not resolve default schema: {e}")
        current = None
    namespace = current or fallback_namespace(dialect.default_schema())
    if not namespace:
        raise ConfigurationError(
            f"Could not determine the {dialect.name} namespace: pass a schema filter or set SCHEMA"
        )
    return namespace


def _analyze_table(
    engine: Engine,
    dialect: MetadataDialect,
    namespace: str,
    name: str,
    is_view: bool,
    options: ExtractionOptions,
    chain: TypeInferenceChain,
    stop: _Stop,
) -> TableInfo:
    stop.check()
    with engine.connect() as conn:
        dialect.apply_statement_timeout(conn, options.query_timeout_seconds)
        table = TableInfo(schema=namespace, name=name, is_view=is_view)
        table.columns = dialect.fetch_columns(conn, namespace, name)

        if options.enable_type_inference and options.enable_data_sampling:
            stop.check()
            sample_table(dialect, conn, table)

        for column in table.columns:
            if options.enable_type_inference:
                column.resolved_type = chain.resolve(column, dialect.name)
            else:
                column.resolved_type = chain.resolve_declared(column, dialect.name)

        stop.check()
        table.indexes = dialect.fetch_indexes(conn, namespace, name)
    return table


def _analyze_routines(
    engine: Engine,
    dialect: MetadataDialect,
    namespace: str,
    options: ExtractionOptions,
    stop: _Stop,
) -> Tuple[List[ScalarFunctionInfo], List[StoredProcedureInfo]]:
    functions: List[ScalarFunctionInfo] = []
    procedures: List[StoredProcedureInfo] = []
    with engine.connect() as conn:
        dialect.apply_statement_timeout(conn, options.query_timeout_seconds)
        if options.include_user_defined_functions:
            functions = dialect.fetch_scalar_functions(conn, namespace)
            logger.info(f"Found {len(functions)} scalar function(s)")
        if options.include_stored_procedures:
            for procedure in dialect.fetch_procedures(conn, namespace):
                stop.check()
                try:
                    classify_procedure(dialect, conn, procedure)
                except Exception as e:
                    logger.warning(f"Skipped procedure '{procedure.schema}.{procedure.name}': {e}")
                    continue
                procedures.append(procedure)
            logger.info(f"Found {len(procedures)} stored procedure(s)")
    return functions, procedures


def _await_all(futures: List[Future], stop: _Stop) -> None:
    """Wait for every future, re-raising the first failure or a cancellation."""
    pending = set(futures)
    while pending:
        stop.check()
        done, pending = wait(pending, timeout=stop.remaining(), return_when=FIRST_COMPLETED)
        for future in done:
            future.result()


def extract_schema(
    connection: Union[ConnectionDescriptor, str],
    options: Optional[ExtractionOptions] = None,
    chain: Optional[TypeInferenceChain] = None,
    cancel_event: Optional[threading.Event] = None,
) -> DatabaseSchema:
    """
    Extract the schema of one namespace.

    Args:
        connection: ConnectionDescriptor, or a database URL.
        options: what to extract. Defaults to ExtractionOptions().
        chain: type inference chain. Built from the default classifier when
            type inference is enabled and none is given.
        cancel_event: set it from another thread to abandon the extraction.

    Raises:
        ConfigurationError: missing connection parameters, before any I/O, or
            no namespace could be resolved after connecting.
        UnsupportedEngineError: no dialect for the engine.
        ConnectivityError: the database is unreachable or a catalog query failed.
        ExtractionCancelled: cancel_event was set or the deadline passed.
    """
    if isinstance(connection, str):
        connection = ConnectionDescriptor.from_url(connection)
    options = options or ExtractionOptions()
    connection.validate()
    options.validate()
    dialect = get_dialect(connection.engine_name)

    if chain is None:
        chain = TypeInferenceChain.default() if options.enable_type_inference else TypeInferenceChain()

    deadline = time.monotonic() + options.deadline_seconds if options.deadline_seconds else None
    stop = _Stop(cancel_event, deadline)
    stop.check()
    target = connection.safe_repr()

    engine = get_engine(connection, dialect)
    try:
        try:
            conn = engine.connect()
        except SQLAlchemyError as e:
            raise ConnectivityError(f"Could not connect to {target}: {e}") from e

        with conn:
            try:
                dialect.apply_statement_timeout(conn, options.query_timeout_seconds)
                namespace = _resolve_namespace(dialect, conn, options)
                logger.info(f"Starting schema extraction for {dialect.name} namespace: {namespace}")

                names = [(name, False) for name in dialect.fetch_tables(conn, namespace)]
                if options.include_views:
                    names += [(name, True) for name in dialect.fetch_views(conn, namespace)]
                logger.info(f"Found {len(names)} table(s) and view(s)")

                schema = DatabaseSchema(engine=dialect.name, namespace=namespace)
                executor = ThreadPoolExecutor(max_workers=options.max_workers, thread_name_prefix="dbintrospect")
                try:
                    routine_future = None
                    if options.include_stored_procedures or options.include_user_defined_functions:
                        routine_future = executor.submit(
                            _analyze_routines, engine, dialect, namespace, options, stop
                        )
                    table_futures = []
                    for idx, (name, is_view) in enumerate(names):
                        logger.info(f"Analyzing {'view' if is_view else 'table'} {idx + 1}/{len(names)}: {name}")
                        table_futures.append(executor.submit(
                            _analyze_table, engine, dialect, namespace, name, is_view, options, chain, stop
                        ))

                    _await_all(table_futures, stop)
                    schema.tables = [f.result() for f in table_futures]

                    if options.include_relationships:
                        stop.check()
                        base_tables = [t for t in schema.tables if not t.is_view]
                        rows = dialect.fetch_foreign_key_rows(conn, namespace, [t.name for t in base_tables])
                        schema.relationships = aggregate_foreign_keys(rows)
                        if options.enable_legacy_relationship_inference:
                            schema.relationships += infer_relationships_from_names(
                                base_tables, schema.relationships
                            )
                        logger.info(f"Found {len(schema.relationships)} relationship(s)")
                    populate_table_relationships(schema.tables, schema.relationships)

                    if routine_future is not None:
                        _await_all([routine_future], stop)
                        schema.scalar_functions, schema.stored_procedures = routine_future.result()
                except BaseException:
                    stop.internal.set()
                    raise
                finally:
                    executor.shutdown(wait=True, cancel_futures=True)
            except SQLAlchemyError as e:
                raise ConnectivityError(f"Catalog query failed on {target}: {e}") from e

        logger.info(
            f"Done: {len(schema.tables)} tables, {len(schema.indexes)} indexes, "
            f"{len(schema.relationships)} relationships, {len(schema.scalar_functions)} functions, "
            f"{len(schema.stored_procedures)} procedures"
        )
        return schema
    finally:
        engine.dispose()
