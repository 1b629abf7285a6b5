from .orchestrator import GenerationOutcome, generate_with_fallback, parse_json_object

__all__ = ["GenerationOutcome", "generate_with_fallback", "parse_json_object"]
