"""
Component Catalog: static registry of component types and their standard
step procedures.

Read-only reference data. The Workflow Engine consumes a ComponentType's
ordered step list when a task's workflow is initialized.
"""

from typing import Dict, Iterable, List, Optional

from mechtrack_kernel.errors import UnknownComponentError
from mechtrack_kernel.models.catalog import (
    ComponentCategory,
    ComponentType,
    RiskTier,
    SkillRequirement,
    StepDefinition,
)


def _setup_step(component_id: str, category: ComponentCategory) -> StepDefinition:
    return StepDefinition(
        id=f"{component_id}_step_1",
        step_number=1,
        title="Pre-inspection and Setup",
        description="Initial inspection and preparation",
        instructions=[
            "Clear work area and ensure proper lighting",
            "Gather required tools and safety equipment",
            "Inspect component for damage or wear",
        ],
        safety_notes=["Wear safety glasses", "Ensure proper ventilation"],
        estimated_minutes=30,
        risk_tier=RiskTier.LOW,
        required_tools=["Calipers", "Torque wrench", "Safety equipment"],
        quality_checks=[
            "Work area clear of debris",
            "Raw stock matches drawing revision",
        ],
        common_errors=["Skipping incoming material inspection"],
        preventive_tips=["Check the drawing revision against the job card"],
        category=category.value,
    )


def _final_step(component_id: str, category: ComponentCategory) -> StepDefinition:
    return StepDefinition(
        id=f"{component_id}_step_3",
        step_number=3,
        title="Final Testing and Documentation",
        description="Complete testing and quality verification",
        instructions=[
            "Perform operational tests",
            "Verify all specifications",
            "Document completion and measurements",
        ],
        safety_notes=["Lock out power during testing", "Follow test procedures"],
        estimated_minutes=45,
        risk_tier=RiskTier.LOW,
        required_tools=["Test equipment", "Documentation forms"],
        quality_checks=[
            "All dimensions within tolerance",
            "Measurements recorded on the job card",
        ],
        common_errors=[
            "Recording measurements from memory",
            "Testing before fasteners reach final torque",
        ],
        preventive_tips=[
            "Record each measurement as it is taken",
            "Photograph the finished component",
        ],
        category=category.value,
    )


# Category-specific main assembly steps. Everything not listed falls back to
# the generic medium-risk assembly step.
_MAIN_STEPS: Dict[ComponentCategory, dict] = {
    ComponentCategory.SHAFT: {
        "title": "Turning and Keyway Machining",
        "description": "Turn journals to size and cut the keyway",
        "instructions": [
            "Mount the shaft between centres",
            "Turn bearing journals to finished diameter",
            "Mill the keyway to drawing depth",
        ],
        "safety_notes": ["Keep hands clear of the rotating chuck", "Secure all tooling"],
        "estimated_minutes": 90,
        "risk_tier": RiskTier.MEDIUM,
        "required_tools": ["Lathe", "Milling machine", "Micrometer"],
        "quality_checks": ["Journal runout below 0.02 mm", "Keyway width within tolerance"],
        "common_errors": [
            "Journal taper from worn tailstock alignment",
            "Keyway cut off-centre",
        ],
        "preventive_tips": ["Verify tailstock alignment with a test bar"],
    },
    ComponentCategory.GEAR: {
        "title": "Gear Hobbing and Mesh Alignment",
        "description": "Cut the helical teeth and verify mesh against the mating gear",
        "instructions": [
            "Set the hob helix angle for the specified hand",
            "Cut teeth in two passes: roughing then finishing",
            "Check backlash and contact pattern against the mating gear",
        ],
        "safety_notes": ["Use proper lifting techniques", "Guard the hob before starting"],
        "estimated_minutes": 150,
        "risk_tier": RiskTier.HIGH,
        "required_tools": ["Gear hobbing machine", "Backlash gauge", "Marking compound"],
        "quality_checks": [
            "Backlash within specification",
            "Contact pattern centred on the tooth flank",
            "No burrs on tooth tips",
        ],
        "common_errors": [
            "Complex alignment requirements",
            "Precision torque specifications",
            "Multiple measurement points",
        ],
        "preventive_tips": [
            "Use calibrated torque wrench",
            "Follow step-by-step checklist",
            "Take progress photos at each stage",
        ],
    },
    ComponentCategory.BRACKET: {
        "title": "Cutting, Drilling and Welding",
        "description": "Cut plate to size, drill mounting holes and weld gussets",
        "instructions": [
            "Mark and cut plate to drawing dimensions",
            "Drill mounting holes using the drilling jig",
            "Tack then fully weld the gussets",
        ],
        "safety_notes": ["Wear a welding helmet and gloves", "Ensure proper ventilation"],
        "estimated_minutes": 60,
        "risk_tier": RiskTier.MEDIUM,
        "required_tools": ["Plasma cutter", "Drill press", "MIG welder"],
        "quality_checks": ["Hole pitch matches motor footprint", "Welds free of porosity"],
        "common_errors": ["Distortion from uneven weld heat"],
        "preventive_tips": ["Alternate weld sides to balance heat input"],
    },
}

_GENERIC_MAIN_STEP = {
    "title": "Main Assembly Work",
    "description": "Primary assembly operations",
    "instructions": [
        "Follow component-specific procedures",
        "Apply proper torque specifications",
        "Check alignment and clearances",
    ],
    "safety_notes": ["Use proper lifting techniques", "Secure all tooling"],
    "estimated_minutes": 60,
    "risk_tier": RiskTier.MEDIUM,
    "required_tools": ["Hydraulic press", "Measuring tools", "Lubricants"],
    "quality_checks": ["Clearances within tolerance", "Fasteners torqued to specification"],
    "common_errors": ["Press fit started out of square"],
    "preventive_tips": ["Lubricate mating surfaces before pressing"],
}


def build_standard_steps(
    component_id: str, category: ComponentCategory
) -> List[StepDefinition]:
    """Build the three-step standard procedure for a component."""
    main = _MAIN_STEPS.get(category, _GENERIC_MAIN_STEP)
    return [
        _setup_step(component_id, category),
        StepDefinition(
            id=f"{component_id}_step_2",
            step_number=2,
            category=category.value,
            **main,
        ),
        _final_step(component_id, category),
    ]


def _component(
    component_id: str,
    name: str,
    category: ComponentCategory,
    description: str,
    estimated_hours: float,
    skill_requirement: SkillRequirement,
) -> ComponentType:
    return ComponentType(
        id=component_id,
        name=name,
        category=category,
        description=description,
        steps=build_standard_steps(component_id, category),
        estimated_hours=estimated_hours,
        skill_requirement=skill_requirement,
    )


DEFAULT_COMPONENTS: List[ComponentType] = [
    _component(
        "shaft_001", "Main Drive Shaft", ComponentCategory.SHAFT,
        "Primary rotating shaft for power transmission",
        4, SkillRequirement.INTERMEDIATE,
    ),
    _component(
        "gear_001", "Helical Gear Assembly", ComponentCategory.GEAR,
        "Precision helical gear for power transmission",
        6, SkillRequirement.ADVANCED,
    ),
    _component(
        "bracket_001", "Motor Mounting Bracket", ComponentCategory.BRACKET,
        "Steel mounting bracket for electric motor",
        2, SkillRequirement.BASIC,
    ),
    _component(
        "bushing_001", "Bronze Sleeve Bushing", ComponentCategory.BUSHING,
        "Press-fit bronze bushing for pivot housings",
        1.5, SkillRequirement.BASIC,
    ),
    _component(
        "coupling_001", "Flexible Jaw Coupling", ComponentCategory.COUPLING,
        "Jaw coupling joining motor and gearbox shafts",
        3, SkillRequirement.INTERMEDIATE,
    ),
]


class ComponentCatalog:
    """Immutable registry of component types, keyed by id."""

    def __init__(self, components: Optional[Iterable[ComponentType]] = None):
        if components is None:
            components = DEFAULT_COMPONENTS
        self._components: Dict[str, ComponentType] = {}
        for component in components:
            if component.id in self._components:
                raise ValueError(f"Duplicate component id: {component.id}")
            self._components[component.id] = component

    def __len__(self) -> int:
        return len(self._components)

    def __contains__(self, component_id: str) -> bool:
        return component_id in self._components

    def get(self, component_id: str) -> ComponentType:
        """Get a component type by id, raising UnknownComponentError on a miss."""
        component = self._components.get(component_id)
        if component is None:
            raise UnknownComponentError(component_id)
        return component

    def find(self, component_id: str) -> Optional[ComponentType]:
        return self._components.get(component_id)

    def all(self) -> List[ComponentType]:
        return list(self._components.values())

    def by_category(self, category: ComponentCategory) -> List[ComponentType]:
        return [c for c in self._components.values() if c.category == category]

    def steps_for(self, component_id: str) -> List[StepDefinition]:
        """The ordered standard steps of a component type."""
        return list(self.get(component_id).steps)
