"""Drive query analyzers over a parsed GraphQL document.

Walks the document once with graphql-core's visitor, keeping a TypeInfo in
step so every node is reported with the type that owns it.
"""

from collections.abc import Mapping, Sequence
from typing import Any, Protocol

from graphql import DocumentNode, GraphQLSchema, NameNode, TypeInfo, Visitor, visit
from graphql.language import Node

from fieldguard.analysis.models import FieldVisit, VisitPhase


class QueryAnalyzer(Protocol):
    def initial_value(self, context: Mapping) -> Any: ...

    def call(self, memo: Any, phase: VisitPhase, node: FieldVisit) -> Any: ...

    def final_value(self, memo: Any) -> Exception | None: ...


def _declared_name(node: Node) -> str:
    name = getattr(node, "name", None)
    return name.value if isinstance(name, NameNode) else ""


class AnalysisVisitor(Visitor):
    """Feeds enter/exit events for every node to each analyzer in turn."""

    def __init__(self, type_info: TypeInfo, analyzers: Sequence[QueryAnalyzer], memos: list):
        super().__init__()
        self._type_info = type_info
        self._analyzers = analyzers
        self.memos = memos

    def enter(self, node, *_args):
        self._type_info.enter(node)
        self._dispatch(VisitPhase.ENTER, node)

    def leave(self, node, *_args):
        # Owner type must be read before TypeInfo pops it
        self._dispatch(VisitPhase.EXIT, node)
        self._type_info.leave(node)

    def _dispatch(self, phase: VisitPhase, node: Node) -> None:
        parent_type = self._type_info.get_parent_type()
        visit_node = FieldVisit(
            owner_type_name=parent_type.name if parent_type is not None else None,
            ast_kind=node.kind,
            declared_name=_declared_name(node),
        )
        for i, analyzer in enumerate(self._analyzers):
            self.memos[i] = analyzer.call(self.memos[i], phase, visit_node)


def analyze_query(
    schema: GraphQLSchema,
    document: DocumentNode,
    analyzers: Sequence[QueryAnalyzer],
    context: Mapping,
) -> list[Exception]:
    """Run analyzers over document and return the errors they produced.

    Store failures raised by an analyzer propagate unchanged.
    """
    if not analyzers:
        return []

    memos = [analyzer.initial_value(context) for analyzer in analyzers]
    visitor = AnalysisVisitor(TypeInfo(schema), analyzers, memos)
    visit(document, visitor)

    errors = []
    for analyzer, memo in zip(analyzers, visitor.memos):
        error = analyzer.final_value(memo)
        if error is not None:
            errors.append(error)
    return errors
