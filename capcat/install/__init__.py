"""Install — gated execution of catalog installers with an audit trail."""
