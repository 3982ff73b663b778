"""CodeTeach API: streaming code generation and explanation for learners."""

__version__ = "0.4.0"
