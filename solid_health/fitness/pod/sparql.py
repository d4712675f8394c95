"""Build SPARQL Update bodies from rdflib terms.

Terms are serialised with ``Node.n3()`` so literal typing (integer vs
decimal vs date) comes from the term, never from string formatting.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Iterable

from rdflib import BNode, Literal, URIRef
from rdflib.term import Node

from solid_health.fitness.pod.namespaces import FHIR, XSD

Triple = tuple[Node, Node, Node]


def term(node: Node) -> str:
    """Serialise one term for a SPARQL body."""
    if isinstance(node, BNode):
        return f"_:{node}"
    return node.n3()


def triples_block(triples: Iterable[Triple]) -> str:
    """One statement per line, suitable inside ``INSERT DATA { }``."""
    return "\n".join(f"  {term(s)} {term(p)} {term(o)} ." for s, p, o in triples)


def insert_data(triples: Iterable[Triple]) -> str:
    """``INSERT DATA`` body for the given statements."""
    return "INSERT DATA {\n" + triples_block(triples) + "\n}"


def quantity_literal(value: float, literal_type: str) -> Literal:
    """Typed literal for an observation value.

    ``integer`` literals are only produced for whole values; a fractional
    value is always written as a decimal.
    """
    if literal_type == "integer" and float(value).is_integer():
        return Literal(int(value), datatype=XSD.integer)
    return Literal(Decimal(str(value)), datatype=XSD.decimal)


def replace_quantity_value(observation: URIRef, value: float) -> str:
    """``DELETE/INSERT/WHERE`` body rewriting an observation's quantity value.

    The new literal is an integer when the value is whole, a decimal
    otherwise.
    """
    literal = quantity_literal(value, "integer")
    fhir_value = term(FHIR.value)
    return (
        "DELETE {\n"
        f"  ?s {fhir_value} ?o\n"
        "} INSERT {\n"
        f"  ?s {fhir_value} {term(literal)}\n"
        "} WHERE {\n"
        f"  {term(observation)} {term(FHIR['Observation.valueQuantity'])} [\n"
        f"    {term(FHIR['Quantity.value'])} ?s\n"
        "  ] .\n"
        f"  ?s {fhir_value} ?o\n"
        "}"
    )
