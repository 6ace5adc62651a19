"""
Website Insights demo package.

Modules:
- settings: Centralized configuration
- db: SQLite persistence layer (websites, analyses, messages, reports)
- url_validation: Website URL normalization and validation
- suggestions: Suggestion extraction from analysis text
- rate_limit: Fixed-window rate limiting
- demo_session: Anonymous demo session quota
- analysis: Analysis core (LLM call or canned fallback)
- insight: Pipeline facade used by the demo page
- reports: Report compilation and Markdown export
- runtime: Streamlit / LangChain adapters
- auth: Optional sign-in
- audit_log: Security audit events
- security: Question sanitization
- logging_config: Logging setup
"""
