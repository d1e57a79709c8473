"""Application services for the cdev CLI.

Services implement the business logic of the application, coordinating
between the domain layer (core/) and infrastructure (platform/, git/).
"""
