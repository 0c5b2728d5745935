"""
mtest: run Meteor package tests in a headless browser.
"""
