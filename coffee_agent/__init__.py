"""Research, people search and outreach agents for the CoffeeAgent networking CRM."""

__version__ = "0.1.0"
