"""
Linkup Backend - API Layer
============================

The request pipeline every /api route runs through:

    context.py     token + client identity extraction, RequestContext
    validation.py  declarative field rules and HTML sanitisation
    envelope.py    canonical success / failure response bodies
    pipeline.py    rate limit → auth → validate → persistence → handler
"""
