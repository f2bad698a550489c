"""
Portal web application.

A server-rendered site whose sign-in is delegated to a hosted-login provider.
See ``portal.app.main`` for the application factory.
"""
