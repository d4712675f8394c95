"""RDF vocabularies used in profile, type index and observation documents."""

from rdflib import Namespace
from rdflib.namespace import DCTERMS, FOAF, OWL, RDF, XSD

SOLID = Namespace("http://www.w3.org/ns/solid/terms#")
FHIR = Namespace("http://hl7.org/fhir/")
LOINC = Namespace("http://loinc.org/rdf#")
LDP = Namespace("http://www.w3.org/ns/ldp#")

LOINC_SYSTEM = "http://loinc.org"
UCUM_SYSTEM = "http://unitsofmeasure.org"
FHIR_ONTOLOGY = "http://hl7.org/fhir/fhir.ttl"

__all__ = [
    "DCTERMS",
    "FHIR",
    "FHIR_ONTOLOGY",
    "FOAF",
    "LDP",
    "LOINC",
    "LOINC_SYSTEM",
    "OWL",
    "RDF",
    "SOLID",
    "UCUM_SYSTEM",
    "XSD",
]
