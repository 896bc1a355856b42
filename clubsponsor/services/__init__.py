"""Domain services: business rules shared by the HTTP routes, CLI and jobs."""
