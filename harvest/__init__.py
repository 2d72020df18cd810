"""
Declarative web-scraping engine.

A scraper is an XML configuration describing a pipeline of processors
(HTTP requests, HTML cleanup, XPath and regular-expression extraction,
variables, scripting, loops and branches). The engine loads the
configuration and runs it, producing variables as output.
"""
