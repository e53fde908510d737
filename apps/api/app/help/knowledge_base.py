from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from types import MappingProxyType


@dataclass(frozen=True, slots=True)
class HelpEntry:
    explanation: str
    tips: tuple[str, ...] = ()
    related_features: tuple[str, ...] = ()


def _entry(explanation: str, tips: list[str], related: list[str]) -> HelpEntry:
    return HelpEntry(explanation=explanation, tips=tuple(tips), related_features=tuple(related))


def _freeze(raw: dict[str, dict[str, HelpEntry]]) -> Mapping[str, Mapping[str, HelpEntry]]:
    return MappingProxyType({context: MappingProxyType(dict(elements)) for context, elements in raw.items()})


KNOWLEDGE_BASE: Mapping[str, Mapping[str, HelpEntry]] = _freeze(
    {
        "page-dashboard": {
            "general": _entry(
                "The dashboard summarises open desk records, recent pricing sessions and your unread notifications.",
                ["Start the day from the dashboard", "Open items assigned to you are counted separately"],
                ["Desk Summary", "Notifications"],
            ),
            "overview": _entry(
                "The dashboard provides an overview of business operations: pricing activity, customer interactions "
                "and recent changes across all modules.",
                [
                    "Check the dashboard regularly for new notifications",
                    "Use the quick counts to monitor workload",
                    "Recent activity shows what changed and who changed it",
                ],
                ["Pricing Sessions", "Customer Management", "Change Log"],
            ),
            "pricing-stats": _entry(
                "Pricing statistics show recent local distributor and marketplace pricing sessions, including totals "
                "and how many are still waiting for review.",
                [
                    "Monitor pricing trends to tune category markups",
                    "Compare distributor and marketplace sessions",
                    "Pending sessions need an administrator review",
                ],
                ["Local Distributor Pricing", "Marketplace Pricing", "Category Management"],
            ),
            "customer-stats": _entry(
                "Customer statistics display the status of inquiries, quotation requests, work orders and tickets.",
                [
                    "Keep track of pending items that need attention",
                    "Use status counts to prioritise urgent work",
                ],
                ["Customer Inquiries", "Work Orders", "Tickets", "Call Logs"],
            ),
        },
        "page-local-pricing": {
            "categories": _entry(
                "Product categories determine markup percentages. Every priced line needs a category or an explicit markup.",
                [
                    "Check the category chosen for each line",
                    "Adjust markup percentages in Category Management",
                ],
                ["Category Management", "Markup Percentages", "Pricing History"],
            ),
            "calculations": _entry(
                "Pricing follows the formula: cost in USD times the exchange rate, plus 15% GCT, then the category "
                "markup. The final price can be rounded.",
                [
                    "GCT is added before the markup",
                    "The default exchange rate is 162 JMD per USD",
                    "Pick a rounding option that suits your shelf prices",
                ],
                ["Exchange Rate", "Category Markups", "GCT Calculation"],
            ),
            "rounding": _entry(
                "Rounding options round to the nearest dollar or hundred, or always up to the next 100, 1000 or 10000.",
                ["Rounding never lowers a price when an 'up' mode is selected"],
                ["Pricing Sessions"],
            ),
        },
        "page-marketplace-pricing": {
            "url-validation": _entry(
                "Enter a marketplace product URL or ASIN to look up the list price. Manual cost entry is available when "
                "the lookup fails.",
                [
                    "Use the full product URL for best results",
                    "Enter the price manually if the lookup service is unavailable",
                ],
                ["Manual Price Entry", "Markup Calculation"],
            ),
            "markup-logic": _entry(
                "Marketplace pricing adds a 7% surcharge to the list price, then applies an 80% markup below $100 "
                "and a 120% markup from $100 upward.",
                [
                    "The tier is chosen from the cost after the surcharge",
                    "An override markup replaces the tier markup",
                    "Review final prices before confirming orders",
                ],
                ["Cost Calculation", "Dynamic Markup", "Price History"],
            ),
        },
        "page-customer-inquiries": {
            "status-management": _entry(
                "Track customer inquiries through New, Contacted, Follow-up, Completed or Closed. Status history is "
                "kept automatically.",
                [
                    "Update the status as you talk to the customer",
                    "Use Follow-up for items that need another contact",
                ],
                ["Status History", "User Assignment", "Customer Communications"],
            ),
            "assignment": _entry(
                "Assign inquiries to a team member to make follow-up accountable. Only administrators can reassign inquiries.",
                ["Assign inquiries based on expertise and workload", "Assignees are notified automatically"],
                ["User Management", "Status Tracking"],
            ),
        },
        "page-quotation-requests": {
            "urgency-levels": _entry(
                "Prioritise quotation requests using urgency levels: Low, Medium, High or Urgent.",
                [
                    "Set urgency from the customer's deadline",
                    "Handle high and urgent requests first",
                ],
                ["Priority Management", "Status Tracking"],
            ),
            "status-workflow": _entry(
                "Quotation requests move through Pending, In Progress, Quoted, Accepted or Declined, and Completed.",
                [
                    "Use Quoted once prices have been sent to the customer",
                    "Track acceptance rates for business insight",
                ],
                ["Quotations", "Customer Follow-up"],
            ),
        },
        "page-work-orders": {
            "status-workflow": _entry(
                "Work orders follow Received, In Progress, Testing, Ready for Pickup and Completed. Any work order "
                "that is not yet completed can be cancelled.",
                [
                    "Update the status as work progresses",
                    "Add notes at each stage",
                    "The assignee and creator are notified of every status change",
                ],
                ["Status Notifications", "Status History"],
            ),
            "notes-system": _entry(
                "Technician notes document the work performed, issues found and solutions applied.",
                ["Include part numbers and technical details", "Update notes during the repair"],
                ["Documentation", "Quality Control"],
            ),
        },
        "page-call-logs": {
            "call-tracking": _entry(
                "Log incoming and outgoing calls with purpose, duration, outcome and follow-up needs.",
                [
                    "Log calls right after they end",
                    "Set a follow-up date when another call is needed",
                ],
                ["Customer History", "Follow-up Management"],
            ),
            "call-outcomes": _entry(
                "Call outcomes measure service effectiveness: Answered, Voicemail, Busy, No Answer, Resolved or "
                "Follow-up Needed.",
                ["Use the same outcome categories across the team"],
                ["Service Metrics", "Follow-up Scheduling"],
            ),
        },
        "page-tickets": {
            "priority-system": _entry(
                "Internal tickets use priority levels (Low, Medium, High, Urgent) to focus the team on the most "
                "important issues first.",
                ["Set priority from business impact", "Urgent tickets should be handled immediately"],
                ["Issue Management", "Team Coordination"],
            ),
            "assignment": _entry(
                "Assign tickets to team members based on expertise and availability.",
                ["Monitor resolution times", "Reassign when someone is away"],
                ["Team Management", "Performance Monitoring"],
            ),
        },
        "form-customer-inquiry": {
            "customer-name": _entry(
                "Enter the full name of the customer making the inquiry.",
                ["Include both first and last names when possible", "Verify spelling for accurate records"],
                ["Customer Database"],
            ),
            "telephone-number": _entry(
                "Record the customer's primary contact number in a consistent format.",
                ["Include the area code", "Use a consistent format such as 876-555-1234"],
                ["Contact Management", "Call Logs"],
            ),
            "item-inquiry": _entry(
                "Describe the product or service the customer is asking about.",
                ["Include model numbers, brands or specifications", "Ask clarifying questions if details are unclear"],
                ["Product Database"],
            ),
        },
        "form-work-order": {
            "item-description": _entry(
                "Describe the item brought in for service, including make, model and identifying features.",
                ["Include serial numbers when available", "Note the physical condition"],
                ["Service Documentation"],
            ),
            "issue-description": _entry(
                "Record the customer's description of the problem. It guides diagnosis and repair.",
                ["Use the customer's own words when possible", "Note any error messages"],
                ["Repair Documentation"],
            ),
        },
    }
)

PAGE_HELP: Mapping[str, HelpEntry] = MappingProxyType(
    {
        "dashboard": _entry(
            "The dashboard shows an overview of your business operations with key counts and recent activity.",
            ["Use the dashboard to monitor daily operations", "Check for urgent items requiring attention"],
            ["Reports", "Notifications"],
        ),
        "pricing": _entry(
            "The pricing module calculates selling prices for products with the appropriate markups.",
            ["Review calculations before finalising prices", "Consider market conditions when setting markups"],
            ["Exchange Rates", "Categories", "History"],
        ),
    }
)

FORM_FIELD_HELP: Mapping[str, HelpEntry] = MappingProxyType(
    {
        "email": _entry(
            "Enter a valid email address that will be used for communications and notifications.",
            ["Use your primary business email", "Ensure the mailbox is monitored"],
            ["Notifications", "Communications"],
        ),
        "phone": _entry(
            "Provide a contact phone number for direct communication when needed.",
            ["Include the area code", "Use your primary business number"],
            ["Call Logs", "Customer Service"],
        ),
    }
)
