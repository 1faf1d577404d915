"""Parse, validate, analyze and execute a GraphQL request.

Analysis errors stop execution: the result then carries ``errors`` and no
``data`` key at all.
"""

from collections.abc import Mapping, Sequence
from typing import Any

from graphql import GraphQLError, GraphQLSchema, execute_sync, parse, validate

from fieldguard.query.traversal import QueryAnalyzer, analyze_query


def _format_error(error: Exception) -> dict:
    formatted = getattr(error, "formatted", None)
    if formatted is not None:
        return formatted
    return {"message": str(error)}


def execute_query(
    schema: GraphQLSchema,
    source: str,
    *,
    context: Mapping,
    analyzers: Sequence[QueryAnalyzer] = (),
    root_value: Any = None,
    variable_values: dict | None = None,
    operation_name: str | None = None,
) -> dict:
    """Execute source against schema and return the response dict.

    Raises StoreUnavailableError when an analyzer cannot reach its store.
    """
    try:
        document = parse(source)
    except GraphQLError as exc:
        return {"errors": [exc.formatted]}

    validation_errors = validate(schema, document)
    if validation_errors:
        return {"errors": [e.formatted for e in validation_errors]}

    analysis_errors = analyze_query(schema, document, analyzers, context)
    if analysis_errors:
        return {"errors": [_format_error(e) for e in analysis_errors]}

    result = execute_sync(
        schema,
        document,
        root_value=root_value,
        context_value=context,
        variable_values=variable_values,
        operation_name=operation_name,
    )
    return result.formatted
