"""
Example test script for the Testing Agent.

Run with: testing-agent test scripts/example_test.py
"""


async def run(page, context, helpers):
    async def open_example():
        await page.goto("https://example.com")
        await page.wait_for_load_state("load")

    await helpers.step("open_example", open_example)
